from setuptools import setup, find_packages

with open("requirements.txt") as f:
    required = f.read().splitlines()

setup(
    name="doccatalog",
    version="0.0.1",
    packages=find_packages("src"),
    package_dir={"": "src"},
    install_requires=required,
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["doccatalog = doccatalog.cli:main"]},
    description="Aggregate documentation sources from git and classify them into a content catalog",
)
