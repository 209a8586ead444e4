#!/usr/bin/env python
"""Celery beat scheduler entry point for periodic pool resyncs."""

from ipam_operator.celery_app import celery_app
from ipam_operator.utils.logger import setup_logging

setup_logging()


if __name__ == "__main__":
    celery_app.start(["beat", "--loglevel=info"])
