from setuptools import find_packages, setup

setup(
    name="didanchor",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "cryptography",
        "requests",
        "click",
        "PyJWT>=2",
        "PyNaCl",
        "substrate-interface",
        "websocket-client",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "didanchor=didanchor.cli:cli",
        ],
    },
)
