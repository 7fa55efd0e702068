from setuptools import setup, find_packages

setup(
    name="vubly",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.5.0",
        "requests>=2.31.0",
        "urllib3>=2.0.0",
        "redis>=5.0.1",
        "yt-dlp>=2024.3.10",
        "youtube-transcript-api>=1.0.0",
        "openai>=1.12.0",
        "python-dotenv>=1.0.0",
        "colorlog>=6.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vubly-api=vubly_api.app:main",
        ],
    },
    python_requires=">=3.9",
    description="Backend for dubbing YouTube videos into another language",
    author="Vubly Team",
)
