# setup.py
from setuptools import setup, find_packages

setup(
    name="subexplain",
    version="0.1.0",
    description="Comparative subspace explanation engine: rank the fields behind a foreground/background gap",
    author="Randy Davila",
    author_email="rrd6@rice.edu",
    url="https://github.com/your-org/subexplain",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pandas>=2.3.0",
        "numpy>=1.24",
        "httpx>=0.27",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    python_requires=">=3.9",
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
