from setuptools import setup, find_namespace_packages

setup(
    name="campus-access-api",
    version="0.1.0",
    packages=find_namespace_packages(include=["src", "src.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]",
        "asyncpg",
        "pydantic",
        "pydantic-settings",
        "python-dotenv",
        "python-jose[cryptography]",
        "pyyaml",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
            "aiosqlite",
        ],
    },
)
