from setuptools import find_packages, setup


setup(
    name="onnx-lower",
    version="0.1.0",
    description="ONNX graph -> backend-agnostic compute IR -> ordered target passes",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "onnx>=1.14",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7",
        ],
    },
    zip_safe=False,
)
