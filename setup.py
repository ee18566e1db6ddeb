from setuptools import setup, find_packages

setup(
    name='meshctl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'kubernetes',
        'python-dotenv',
        'requests',
        'urllib3',
        'PyYAML',
        'jsonschema',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'meshctl=meshctl.cli:run'
        ]
    },
    description='A CLI for installing a service mesh onto Kubernetes and managing its configuration',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
