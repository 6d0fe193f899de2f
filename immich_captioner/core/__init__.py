"""
Core Captioning Logic
=====================

This package contains the business logic of immich-captioner: the run
configuration, the Immich thumbnail client, database access, image
normalization, the enrichment loop and the benchmark runner.
"""
