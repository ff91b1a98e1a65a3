from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="sql-record-scaler",
    version="0.1.0",
    author="StepScale.io",
    author_email="info@stepscale.io",
    description="A polling external-metric scaler that reports SQL query record counts to autoscalers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/stepscale/sql-record-scaler",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["lambda_function"],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "boto3>=1.26.0",
        "botocore>=1.29.0",
        "retry>=0.9.2",
        "PyMySQL>=1.0.2",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
