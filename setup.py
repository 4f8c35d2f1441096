from setuptools import setup, find_packages

setup(
    name='k3s-bootstrap',
    version='0.1.0',
    packages=find_packages(exclude=['scripts']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'pydantic>=2',
        'kubernetes',
        'paramiko',
        'jsonschema',
        'python-dotenv',
        'PyYAML',
        'requests',
        'urllib3'
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'k3s-bootstrap=k3sbootstrap.cli:main'
        ]
    },
    author='Your Name',
    description='Bootstrap multi-node K3s clusters with Longhorn, cert-manager and Rancher',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
