from setuptools import setup, find_namespace_packages

setup(
    name="agrisys-node-simulator",
    version="0.1.0",
    packages=find_namespace_packages(include=["agrisys", "agrisys.*"]),
    py_modules=["run_simulation"],
    include_package_data=True,
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.15.0",
        "python-dotenv>=0.19.0",
        "pydantic>=2.0",
        "python-json-logger>=2.0.2",
        "pyyaml>=5.4.1",
        "click>=8.0",
        "paho-mqtt>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.2.5",
            "pytest-cov>=2.12.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "black>=21.5b2",
            "flake8>=3.9.2",
            "mypy>=0.910"
        ]
    },
    entry_points={
        "console_scripts": [
            "agrisys=agrisys.tools.simulation_manager:cli",
        ]
    },
    author="Tu Nombre",
    author_email="tu@email.com",
    description="Simulador de nodos agrícolas con control automático de riego y humedad vía MQTT",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    url="https://github.com/tu-usuario/agrisys-node-simulator",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.9",
)
