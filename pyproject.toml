[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "thunderkit"
version = "0.1.0"
description = "Building blocks for services: request metadata, logging, error mapping for events, GraphQL and gRPC, and a small WSGI router."
requires-python = ">=3.10"
dependencies = []
keywords = ["microservices", "metadata", "correlation-id", "logging", "events", "graphql", "grpc", "router", "wsgi"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["thunderkit"]

[tool.pytest.ini_options]
addopts = "-ra"
