#!/usr/bin/env python3
# CUI // SP-CTI
"""Shinobi configuration and binding core.

Resolves five-layer component configuration for a compliance framework and
turns manifest binding directives into environment variables, permission
statements, network rules and compliance actions.
"""

__version__ = "0.4.0"
