from setuptools import setup, find_packages

# Read requirements from requirements.txt
with open('requirements.txt', 'r') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

setup(
    name="ledger-sync",
    version="0.1.0",
    description="Ledger Sync - reconcile OKX account bills into an append-only CSV ledger",
    author="Ledger Sync Team",
    packages=find_packages(include=['ledger_sync', 'ledger_sync.*']),
    install_requires=requirements,
    extras_require={
        'test': [
            'pytest>=7.4.0'
        ],
        'dev': [
            'pytest>=7.4.0',
            'pytest-cov>=4.1.0',
            'black>=23.9.0',
            'ruff>=0.1.0'
        ]
    },
    entry_points={
        'console_scripts': [
            'ledger-sync=ledger_sync.cli:main',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
    ],
)
