import pytest

from aqar.config import Settings
from aqar.models.lexicon import load_lexicon
from aqar.services.extractor import CriteriaExtractor


@pytest.fixture
def ar_lexicon():
    return load_lexicon("ar")


@pytest.fixture
def en_lexicon():
    return load_lexicon("en")


@pytest.fixture
def ar_extractor(ar_lexicon):
    return CriteriaExtractor(ar_lexicon)


@pytest.fixture
def en_extractor(en_lexicon):
    return CriteriaExtractor(en_lexicon)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=tmp_path,
        embedding_api_key=None,
        anthropic_api_key=None,
    )
