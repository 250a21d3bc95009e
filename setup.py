"""The setup script."""
from setuptools import setup, find_packages

with open('README.rst') as readme_file:
    readme = readme_file.read()

# get the requirements from requirements.txt
with open('requirements.txt') as requirements_file:
    reqs = [line.strip() for line in requirements_file if line.strip() and not line.startswith('#')]

test_requirements = ["aioresponses>=0.7.6", "aiohttp<3.14"]  # aioresponses 0.7.9 is incompatible with aiohttp 3.14

setup(
    name='neo-viper',
    python_requires='>=3.10',
    version='0.1.0',
    description="Python client SDK core for the NEO N3 blockchain",
    long_description=readme,
    long_description_content_type="text/x-rst",
    packages=find_packages(include=['neoviper', 'neoviper.*']),
    include_package_data=True,
    install_requires=reqs,
    extras_require={"test": test_requirements},
    license="MIT license",
    zip_safe=False,
    keywords='neo3, python, SDK, rpc',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
