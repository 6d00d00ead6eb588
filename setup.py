from setuptools import setup, find_packages

requires = [
    "pyomo",
    "gridx-egret",
    "pint",
    "pandas",
]

setup(
    name="estor",
    version="0.1.dev0",
    python_requires=">=3.8",
    description="Storage operations formulation for capacity expansion models",
    packages=find_packages(include=["estor", "estor.*"]),
    install_requires=requires,
    extras_require={"tests": ["pytest", "highspy"]},
)
