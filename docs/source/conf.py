import os
import sys
sys.path.insert(0, os.path.abspath('../..'))  # repo root, so the service packages import

# Services read these at import time; autodoc must not need a live database.
os.environ.setdefault("DATABASE_URL", "sqlite:///./docs_build.db")
os.environ.setdefault("TESTING", "1")

# Sphinx configuration for the Lab Equipment Manager API reference.
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = 'Lab Equipment Manager'
copyright = '2026, Lab Equipment Manager contributors'
author = 'Lab Equipment Manager contributors'
release = '1.0.0'

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",   # numpy style docstrings
    "sphinx.ext.viewcode",
    "sphinx.ext.autosummary",
]
autosummary_generate = True
autodoc_member_order = "bysource"

templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'alabaster'
html_static_path = []
