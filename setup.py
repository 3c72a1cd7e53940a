from setuptools import setup, find_packages

setup(
    name='facehealth',
    version='0.1',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'torch',
        'numpy',
        'pydantic>=2',
    ],
    extras_require={
        'test': ['pytest'],
    },
    description='Personalized ridge-regression models from facial features to daily health metrics',
    author='Alexander Belik',
    license='',
)
