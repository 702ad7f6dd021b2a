from setuptools import setup, find_packages

setup(
    name='chainseal',
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'click>=8.0',
        'jcs>=0.2.1',
        'httpx>=0.24',
        'cryptography>=41.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
            'hypothesis>=6.0',
        ]
    },
    entry_points={
        'console_scripts': [
            'chainseal=chainseal.cli:cli',
        ],
    },
    description='Tamper-evident block chain with authority timestamp signatures',
    long_description_content_type='text/markdown',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.8',
    ],
    python_requires='>=3.8',
)
