import setuptools
import os
import os.path


# Get the readme file
if os.path.isfile("README.md"):
    with open("README.md", "r") as fh:
        long_description = fh.read()
else:
    long_description = ""

setuptools.setup(
    name="ed_ring",
    version="0.1.0",
    description="Exact Diagonalization of particle diffusion on a ring of prime length",
    long_description=long_description,
    long_description_content_type="text/markdown",
    project_urls={},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    package_dir={
        "ed_ring": "ed_ring",
        "ed_ring.algorithms": "ed_ring/algorithms",
        "ed_ring.dynamics": "ed_ring/dynamics",
        "ed_ring.modeling": "ed_ring/modeling",
        "ed_ring.tools": "ed_ring/tools",
        "ed_ring.workflows": "ed_ring/workflows",
    },
    packages=[
        "ed_ring",
        "ed_ring.algorithms",
        "ed_ring.dynamics",
        "ed_ring.modeling",
        "ed_ring.tools",
        "ed_ring.workflows",
    ],
    python_requires=">=3.10",
    install_requires=["numpy", "scipy", "numba", "matplotlib"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["ed-ring = ed_ring.workflows.cli:main"]},
)
