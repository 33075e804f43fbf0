#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
A minimal setup.py for the VAR Toolbox that defers to pyproject.toml.
It is kept so that legacy tooling invoking ``python setup.py`` still finds
the vartoolbox package metadata declared in pyproject.toml.
"""

import setuptools

if __name__ == "__main__":
    # All metadata lives in pyproject.toml
    setuptools.setup()
