from setuptools import setup, find_packages

setup(
    name="quant_finance_engine",
    version="0.1.0",
    description="Coupon security yields, price tree statistics and growth-rate lattices",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
