from setuptools import setup, find_packages


setup(
    name="bithub-bridge",
    version="0.1.0",
    description="Paced, retrying Bithub forum API bridge for conversational agents",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "httpx>=0.27.0",
        "pydantic>=2.6.0",
        "pydantic-settings>=2.2.0",
        "typer>=0.12.0",
        "APScheduler>=3.10.0,<4",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "bithub=bithub.cli:app",
        ]
    },
    python_requires=">=3.11",
)
