from setuptools import setup, find_packages

setup(
    name="naev-relay",
    version="0.1.0",
    description="Naev multiplayer root relay: rendezvous directory of peer-hosted systems",
    author="Naev Multiplayer Team",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "typer>=0.16.0",
        "rich>=13.7.1",
        "python-dotenv>=1.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.2",
        ],
    },
    entry_points={
        "console_scripts": [
            "naev-relay=naev_relay.apps.cli.app:app",
        ],
    },
)
