#!/usr/bin/env python

import os

import setuptools

install_requires = [
    'numpy>=1.20.0',
    'nibabel>=3.2.0',
    'scipy>=1.7.0',
    'torch>=1.10.0',
    'joblib>=1.0.0',
    'tqdm>=4.62.0',
    'psutil>=5.8.0'
]

version = {}
with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), 'enhancepy', '_version.py')) as f:
    exec(f.read(), version)

setuptools.setup(
    name='EnhancePy',
    version=version['__version__'],
    description='Multi-scale Hessian eigenvalue enhancement (sheetness and vesselness) for 3D images',
    author='EnhancePy developers',
    license='Apache-2.0',
    packages=setuptools.find_packages(exclude=("tests*",)),
    install_requires=install_requires,
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.9',
    package_data={
        'enhancepy': [
            'configs/*.ini',
        ]
    },
    entry_points={
        'console_scripts': ['EnhancePy=enhancepy.master_cli:main'],
    },
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Medical Science Apps.',
    ],
)
