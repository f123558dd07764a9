import io
import os

from setuptools import find_packages, setup


def read(*names, **kwargs):
    with io.open(
        os.path.join(os.path.dirname(__file__), *names),
        encoding=kwargs.get("encoding", "utf8"),
    ) as fp:
        return fp.read()


test_req = [
    "coverage>=4.5.1",
    "pytest>=3.5.1",
    "pytest-cov>=2.5.1",
]

docs_req = [
    "Sphinx>=1.7.5",
    "numpydoc>=0.8.0",
]

if __name__ == "__main__":
    setup(
        name="onehalo",
        version="0.1.0",
        install_requires=[
            "hmf>=3.1.0",
            "numpy",
            "scipy",
            "astropy",
            "colossus",
        ],
        extras_require={
            "docs": docs_req,
            "tests": test_req,
            "dev": docs_req + test_req,
        },
        description="The real-space one-halo term of galaxy clustering, built on hmf",
        long_description=read("README.rst"),
        license="MIT",
        keywords="halo occupation distribution one-halo correlation function",
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.8",
    )
