#!/usr/bin/env python3
"""
Entry point for running tpcc_checker as a module.
This file enables: python -m tpcc_checker
"""

from .main import main

if __name__ == '__main__':
    main()
