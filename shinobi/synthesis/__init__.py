#!/usr/bin/env python3
# CUI // SP-CTI
"""Synthesis planning: drives config resolution and binding for a manifest."""

from shinobi.synthesis.planner import SynthesisPlanner, SynthesisReport  # noqa: F401
