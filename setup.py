from setuptools import setup, find_packages

setup(
    name="papercut-toolkit",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "sqlalchemy>=2.0",
        "pyyaml>=6.0",
        "requests>=2.28",
    ],
    extras_require={
        "ai": ["openai>=1.0"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "papercut=papercut_toolkit.cli:main",
        ],
    },
)
