"""Setup script for the Site QA Bot."""

from setuptools import setup, find_packages

setup(
    name="site-qa-bot",
    version="1.0.0",
    description="Website QA harness: SEO, broken links, accessibility and tag-manager checks",
    author="Site QA Team",
    packages=find_packages(include=["qabot", "qabot.*"]),
    include_package_data=True,
    install_requires=[
        "aiohttp>=3.9.0",
        "beautifulsoup4>=4.12.0",
        "click>=8.1.0",
        "rich>=13.6.0",
        "loguru>=0.7.0",
        "tenacity>=8.2.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "playwright>=1.40.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "qabot=qabot.cli:main",
        ],
    },
    python_requires=">=3.10",
)
