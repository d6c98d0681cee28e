from setuptools import setup, find_packages

setup(
    name="wallet-sweep",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["api"],
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings",
        "structlog",
        "redis>=5",
        "prometheus-client",
        "aiohttp"
    ],
    extras_require={
        "test": [
            "pytest>=7",
            "pytest-asyncio",
            "httpx"
        ],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "wallet-sweep-api=api:main",
        ],
    }
)
