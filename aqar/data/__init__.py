"""Lexicon artifacts plus the catalog and embedding index loaders."""
