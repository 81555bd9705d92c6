from setuptools import find_namespace_packages, setup

setup(
    name="letloop",
    version="0.1.0",
    description="Destructuring patterns and loop/recur for a small Lisp compiled to Python AST",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["letloop", "letloop.*"]),
    entry_points={
        "console_scripts": [
            "letloop=letloop.cli:main",
        ],
    },
    extras_require={
        "test": ["pytest"],
    },
)
