from setuptools import find_namespace_packages, setup

setup(
    name='modkeeper',
    version='0.1.0',
    description='Mod registry browser and installer',
    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['modkeeper*']),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'pick',
        'PyYAML',
        'urllib3',
        'platformdirs',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'modkeeper=modkeeper.cli:main',
        ],
    },
)
