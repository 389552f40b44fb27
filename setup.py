"""
Setup script for the contract reminders service
"""
from setuptools import setup, find_packages

setup(
    name="contract_reminders",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.0",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "alembic>=1.13",
        "python-dotenv>=1.0",
        "python-jose[cryptography]>=3.3",
        "redis>=5.0",
        "rq>=1.16",
        "pottery>=3.0",
        "apscheduler>=3.10,<4",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "httpx>=0.25",
            "fakeredis[lua]>=2.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "reminders-worker=contract_reminders.worker:run_worker",
        ],
    },
)
