import os
import random
from datetime import date, timedelta
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from layoffs_pipeline.config import LAYOFF_COLUMNS

COMPANIES = {
    'Airbnb': ('SF Bay Area', 'Travel', 'United States'),
    'Coinbase': ('SF Bay Area', 'Crypto', 'United States'),
    'Shopify': ('Ottawa', 'Retail', 'Canada'),
    'Klarna': ('Stockholm', 'Finance', 'Sweden'),
    'Swiggy': ('Bengaluru', 'Food', 'India'),
    'Juul': ('SF Bay Area', 'Consumer', 'United States'),
    'Bytedance': ('Shanghai', 'Consumer', 'China'),
    'Gemini': ('New York City', 'Crypto', 'United States'),
}
STAGES = ['Seed', 'Series A', 'Series B', 'Series C', 'Post-IPO', 'Acquired', 'Unknown']
INDUSTRY_VARIANTS = {'Crypto': ['Crypto', 'Crypto Currency', 'CryptoCurrency']}
COUNTRY_VARIANTS = {'United States': ['United States', 'United States.']}


def _format_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def generate_layoff_records(num_records: int = 200, seed: Optional[int] = None) -> List[Dict[str, object]]:
    """
    Generate raw layoff rows with the defects the cleaner has to fix.

    On top of clean rows the output contains exact duplicates, padded
    company names, Crypto/United States spelling variants, blank industries
    and rows with no layoff figures at all.
    """
    rng = np.random.default_rng(seed)
    random.seed(seed)
    start = date(2020, 3, 1)

    records = []
    for _ in range(num_records):
        company = random.choice(list(COMPANIES))
        location, industry, country = COMPANIES[company]
        records.append({
            'company': company,
            'location': location,
            'industry': random.choice(INDUSTRY_VARIANTS.get(industry, [industry])),
            'total_laid_off': str(int(rng.integers(10, 5000))) if rng.random() > 0.2 else 'NULL',
            'percentage_laid_off': f"{rng.uniform(0.01, 1):.2f}" if rng.random() > 0.3 else 'NULL',
            'date': _format_date(start + timedelta(days=int(rng.integers(0, 1100)))),
            'stage': random.choice(STAGES),
            'country': random.choice(COUNTRY_VARIANTS.get(country, [country])),
            'funds_raised_millions': str(int(rng.integers(1, 10000))) if rng.random() > 0.1 else 'NULL',
        })

    for record in random.sample(records, k=max(1, num_records // 20)):
        record['company'] = f" {record['company']} "
    for record in random.sample(records, k=max(1, num_records // 20)):
        record['industry'] = random.choice(['', 'NULL', ' '])
    for record in random.sample(records, k=max(1, num_records // 20)):
        record['total_laid_off'] = 'NULL'
        record['percentage_laid_off'] = 'NULL'

    duplicates = [dict(record) for record in random.sample(records, k=max(1, num_records // 10))]
    records.extend(duplicates)
    return records


if __name__ == "__main__":
    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__)))
    output_dir = os.path.join(BASE_DIR, "data", "sample")
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, "layoffs.csv")
    df = pd.DataFrame(generate_layoff_records(500), columns=LAYOFF_COLUMNS)
    df.to_csv(output_file, index=False)
    print(f"Generated CSV file at: {output_file}")
