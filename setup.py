"""Setup file for the eventfabric package."""

from setuptools import setup, find_packages

setup(
    name="eventfabric",
    version="1.0.0",
    packages=find_packages(include=["eventfabric", "eventfabric.*"]),
    install_requires=[
        "click",
        "prometheus-client",
        "pydantic>=2",
        "python-dotenv",
        "pyyaml",
        "pyzmq",
        "redis>=5",
        "rich",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "eventfabric=eventfabric.__main__:main",
        ],
        "eventfabric.pubsub_drivers": [
            "zmq_pubsub_driver=eventfabric.pubsub.zmq_driver:ZMQPubSub",
            "zmq_pubsub_multiproc_driver=eventfabric.pubsub.zmq_driver:ZMQPubSubMultiproc",
            "redis_db_pubsub_driver=eventfabric.pubsub.redis_driver:RedisPubSub",
        ],
    },
    author="Pimentel",
    author_email="pimentel@example.com",
    description="Prioritized publish/subscribe distribution of store mutation events",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
)
