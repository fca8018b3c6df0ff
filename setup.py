"""Setup configuration for gitlab_flows"""

from setuptools import setup, find_packages

setup(
    name="gitlab-report-flows",
    version="0.1.0",
    description=(
        "GitLab reporting flows: weekly multi-group activity digests and "
        "merge request review packages, exposed as a CLI and MCP tools."
    ),
    author="GitLab Report Flows Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "gitlab_flows": ["templates/*.j2"],
    },
    install_requires=[
        "requests>=2.28.0",
        "jinja2>=3.1",
        "python-dotenv>=1.0",
        "mcp>=1.10,<2",
        "anyio>=4.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "gitlab-flows=gitlab_flows.main:main",
            "gitlab-flows-mcp=gitlab_flows.mcp_server:main",
        ],
    },
)
