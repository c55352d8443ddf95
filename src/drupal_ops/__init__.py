# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
DrupalOps core package.

Interactive console that drives git, composer, drush, kubectl and
ibmcloud for Drupal projects through arrow-key menus.
"""
from .session import Session as Session  # noqa: F401 (re-export)
