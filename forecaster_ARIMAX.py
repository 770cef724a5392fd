#!/usr/bin/env python3
"""
ARIMAX forecasting of annual luxury-market growth.

Usage
-----
    python forecaster_ARIMAX.py --help
    python forecaster_ARIMAX.py --data-csv data/luxury.csv --target growth \
        --regressor-sets "macro=GDP,Gini"

The implementation lives in luxury_forecaster_src/ (see luxury_forecaster_src.main).
"""

from luxury_forecaster_src.main import main

if __name__ == "__main__":
    main()
