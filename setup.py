import os

import setuptools

# Make sure that README.md decodes in environments that use the C locale
# (which implies ASCII), by explicitly giving the encoding.
with open(os.path.join(os.path.dirname(__file__), "README.md"), encoding="utf-8") as f:
    long_description = f.read()


setuptools.setup(
    name="xetcode",
    # MAJOR.MINOR.PATCH, per http://semver.org
    version="0.1.0",
    description="A terminal text editor on a pure-Python raw terminal core",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="XetCode contributors",
    keywords="terminal, raw mode, termios, editor, tui",
    license="ISC",
    py_modules=(
        "xetterm",
        "xetcode",
    ),
    entry_points={
        "console_scripts": ("xetcode = xetcode:_main",)
    },
    extras_require={
        "test": ("pytest",),
    },
    # termios is POSIX only
    python_requires=">=3.6",
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Topic :: Terminals",
        "Topic :: Text Editors",
        "License :: OSI Approved :: ISC License (ISCL)",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.6",
        "Programming Language :: Python :: 3.7",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Programming Language :: Python :: Implementation :: PyPy",
    ],
)
