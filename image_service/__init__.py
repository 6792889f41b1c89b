# Image submission & gallery service
