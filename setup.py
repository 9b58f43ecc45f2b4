from setuptools import setup, find_packages

setup(
    name="pixelvault",
    version="1.0.0",
    packages=find_packages(include=["pixelvault", "pixelvault.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.115",
        "uvicorn[standard]>=0.30",
        "python-multipart>=0.0.9",
        "pydantic>=2.7",
        "pydantic-settings>=2.3",
        "Pillow>=10.3",
        "redis>=5.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "pixelvault=pixelvault.app.main:run",
        ],
    },
)
