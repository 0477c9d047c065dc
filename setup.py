"""
Setup script for the biomarker-mcmc package
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_file(filename):
    filepath = os.path.join(os.path.dirname(__file__), filename)
    for enc in ('utf-8-sig', 'utf-8', 'latin-1'):
        try:
            with open(filepath, encoding=enc) as f:
                return f.read()
        except (UnicodeDecodeError, LookupError):
            continue
        except FileNotFoundError:
            return ''
    return ''

setup(
    name='biomarker-mcmc',
    version='0.1.0',
    description='Metropolis-within-Gibbs sampling of hierarchical dose-response models for longitudinal biomarkers',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    license='MIT',

    # Package discovery from src/
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires='>=3.9',

    install_requires=[
        'numpy>=1.21.0',
        'scipy>=1.7.0',
        'pandas>=1.3.0',
        'tqdm>=4.62.0',
        'arviz>=0.12.0,<1.0',
    ],

    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Healthcare Industry',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Topic :: Scientific/Engineering :: Medical Science Apps.',
    ],

    keywords='mcmc gibbs metropolis bayesian hierarchical-model longitudinal dose-response',
)
