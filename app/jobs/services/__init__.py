"""Job pipeline services: storage backends, transformers and the processing invoker."""
