# Copyright © 2025 TheJury

import re
import os
import codecs
from os import path
from io import open
from setuptools import setup, find_packages


here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with codecs.open(os.path.join(here, "jury/__init__.py"), encoding="utf-8") as init_file:
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", init_file.read(), re.M)
    if not version_match:
        raise RuntimeError("Unable to find version string in jury/__init__.py")
    version_string = version_match.group(1)


requirements = [
    # HTTP and networking
    "httpx>=0.27.0",

    # DNS
    "dnspython>=2.6.1",

    # Environment and configuration
    "python-dotenv>=1.0.0",

    # Web framework
    "starlette>=0.30.0",
    "pydantic>=2.0.0",
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.38.0",

    # JWT Token Management
    "pyjwt>=2.8.0",

    # Supabase (storage, auth, RPC)
    "supabase>=2.0.0",
    "postgrest>=0.13.0",

    # Billing
    "stripe>=8.0.0",

    # QR codes (PNG rendering via Pillow)
    "qrcode[pil]>=7.4",
]

test_requirements = [
    "pytest>=8.0.0",
    "pytest-cov>=4.1.0",
    "pytest-mock>=3.10.0",
    "pytest-asyncio>=0.21.0",
]

setup(
    name="thejury",
    version=version_string,
    description="Backend API for TheJury polls, surveys and live presentations",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="TheJury",
    license="MIT",
    packages=find_packages(include=["jury", "jury.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={"test": test_requirements},
    entry_points={
        "console_scripts": [
            "thejury=jury.main:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Framework :: FastAPI",
        "Topic :: Internet :: WWW/HTTP",
    ],
)
