"""Setup script for reasonloop package."""

from setuptools import setup, find_namespace_packages

setup(
    name="reasonloop",
    version="0.1.0",
    description="Typed, tool-calling LLM generation loop with structured thoughts",
    packages=find_namespace_packages(include=["reasonloop*"], exclude=["reasonloop.tests*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "httpx>=0.25.0",
        "pydantic>=2.0",
        "openai>=1.0,<3",
        "anthropic>=0.25,<1",
    ],
    extras_require={
        "browser": ["playwright>=1.40"],
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "reasonloop=reasonloop.main:main",
        ],
    },
    package_data={
        "reasonloop": ["config/default_config.yaml"],
    },
)
