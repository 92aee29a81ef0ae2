#!/usr/bin/env python3
# CUI // SP-CTI
