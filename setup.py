import setuptools

with open("README.md", "r") as file:
    readme = file.read()

setuptools.setup(
    name="opdet",
    version="0.1.0",
    description="Optical detector photon counting and visibility library building",
    long_description=readme,
    long_description_content_type="text/markdown",
    python_requires=">=3.8",
    install_requires=[
        "strax",
        "numpy",
        "numba",
        "pandas",
        "immutabledict",
    ],
    extras_require={
        "test": ["pytest", "timeout_decorator"],
    },
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Scientific/Engineering :: Physics",
    ],
    zip_safe=False,
)
