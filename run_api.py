#!/usr/bin/env python3
"""Simple script to run the EtnoPapers API"""
import logging

import uvicorn

from etnopapers.logging_setup import setup_logging

if __name__ == "__main__":
    setup_logging(logging.INFO)
    uvicorn.run("etnopapers.api:app", host="0.0.0.0", port=8000, reload=True)
