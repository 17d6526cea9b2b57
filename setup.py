from setuptools import setup, find_packages

setup(
    name="figma-design-specs",
    version="1.0.0",
    description="Extract design tokens and image assets from Figma files into a markdown specification",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=[
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        'console_scripts': [
            'figma-specs=main:main',
        ],
    },
)
