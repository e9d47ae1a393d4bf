"""
Graphlit Python Client - Setup

Python client for the Graphlit platform with local LLM streaming agents.
"""

from setuptools import setup, find_packages
import os
import re

# Read the README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

# Read version without importing the package
with open(os.path.join(here, "graphlit", "__init__.py"), encoding="utf-8") as f:
    version = re.search(r'^__version__ = "([^"]+)"', f.read(), re.M).group(1)

PROVIDERS = {
    "openai": ["openai>=1.30"],
    "anthropic": ["anthropic>=0.30"],
    "google": ["google-generativeai>=0.7"],
    "groq": ["groq>=0.9"],
    "cerebras": ["cerebras-cloud-sdk>=1.0"],
    "cohere": ["cohere>=5.5"],
    "mistral": ["mistralai>=1.0"],
    "bedrock": ["boto3>=1.34"],
}

setup(
    name="graphlit-client",
    version=version,
    author="Graphlit",
    author_email="support@graphlit.com",
    description="Python client for the Graphlit platform with streaming LLM agents",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/graphlit/graphlit-client-python",
    project_urls={
        "Documentation": "https://docs.graphlit.dev",
        "Bug Tracker": "https://github.com/graphlit/graphlit-client-python/issues",
    },
    packages=find_packages(include=["graphlit", "graphlit.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.24.0",
        "pydantic>=2.0",
        "PyJWT>=2.8",
        "python-dotenv>=1.0",
        "regex>=2023.0",
    ],
    extras_require={
        **PROVIDERS,
        "tokens": [
            "tiktoken>=0.7",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=4.0",
            "mypy>=1.0",
            "black>=23.0",
            "ruff>=0.0.270",
            "respx>=0.20",
        ],
        "all": sorted({req for reqs in PROVIDERS.values() for req in reqs} | {"tiktoken>=0.7"}),
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Typing :: Typed",
    ],
    keywords=[
        "graphlit",
        "llm",
        "agent",
        "streaming",
        "rag",
        "graphql",
        "openai",
        "anthropic",
        "gemini",
    ],
    package_data={
        "graphlit": ["py.typed"],
    },
    zip_safe=False,
)
