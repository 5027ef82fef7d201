from setuptools import setup

setup(
    name='rf-flatcodec',
    version='1.0',
    packages=['data_structures'],
    py_modules=[
        'container_store',
        'errors',
        'forest_io',
        'forest_params',
        'record_format',
        'tree_decoder',
        'tree_encoder',
    ],
    description='Flat-array import/export of random forests',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.9',
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
)
